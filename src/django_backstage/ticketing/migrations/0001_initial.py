import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('slug', models.SlugField(max_length=200, unique=True)),
                ('description', models.TextField(blank=True, default='')),
                ('category', models.CharField(choices=[('upcoming', 'Upcoming'), ('past', 'Past')], default='upcoming', max_length=20)),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField(blank=True, null=True)),
                ('location', models.CharField(max_length=300)),
                ('venue', models.CharField(blank=True, default='', max_length=300)),
                ('address', models.CharField(blank=True, default='', max_length=500)),
                ('cover', models.URLField(blank=True, default='', max_length=500)),
                ('max_attendees', models.PositiveIntegerField(blank=True, help_text='Maximum number of active registrations. Empty means unlimited.', null=True)),
                ('is_free', models.BooleanField(default=True)),
                ('ticket_price_cents', models.PositiveIntegerField(blank=True, help_text='Ticket price in minor currency units (e.g. cents). Required for paid events.', null=True)),
                ('registration_method', models.CharField(choices=[('native', 'Native registration'), ('external', 'External link'), ('email', 'Email RSVP'), ('none', 'No registration')], default='native', max_length=20)),
                ('registration_link', models.URLField(blank=True, default='', max_length=500)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['start_date'],
                'constraints': [models.CheckConstraint(condition=models.Q(('max_attendees__isnull', True), ('max_attendees__gt', 0), _connector='OR'), name='ticketing_event_max_attendees_positive')],
            },
        ),
        migrations.CreateModel(
            name='StripeEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stripe_id', models.CharField(max_length=255, unique=True)),
                ('kind', models.CharField(max_length=255)),
                ('livemode', models.BooleanField(default=False)),
                ('payload', models.JSONField(default=dict)),
                ('customer_id', models.CharField(blank=True, default='', max_length=255)),
                ('processed', models.BooleanField(default=False)),
                ('api_version', models.CharField(blank=True, default='', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='EventProcessingException',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('data', models.TextField(blank=True, default='')),
                ('message', models.CharField(max_length=500)),
                ('traceback', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('event', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='exceptions', to='backstage_ticketing.stripeevent')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Registration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(max_length=254)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('refunded', 'Refunded'), ('expired', 'Expired'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('amount_paid', models.PositiveIntegerField(default=0, help_text='Amount in minor currency units (e.g. cents).')),
                ('ticket_code', models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ('stripe_session_id', models.CharField(blank=True, db_index=True, default='', max_length=255)),
                ('stripe_payment_intent_id', models.CharField(blank=True, db_index=True, default='', max_length=255)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='registrations', to='backstage_ticketing.event')),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('status__in', ('pending', 'completed'))), fields=('event', 'email'), name='ticketing_registration_one_active_per_email')],
            },
        ),
    ]
